# ============================================================================
# autoprofiler/__init__.py
# Package Marker for the Adaptive Profiling Agent
# ============================================================================
#
# PURPOSE:
# In-process agent that decides when to capture a bounded execution trace,
# keeps a small duration-stratified set of sample operations per capture,
# and checks those samples against the trace before handing it off.
#
# LAYOUT:
# - scheduler/: when to capture (policies, runner, orchestrator)
# - samples/: which operations to keep (bucketing, min-hash selection)
# - validation/: whether the trace is worth uploading
# - profiler/: the capture provider tying the three together
#
# ============================================================================

__version__ = "0.1.0"
