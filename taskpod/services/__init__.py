"""
Services Module

Key Submodules:
- pod: TaskRun-to-Pod compilation and pod readiness marking

Usage:
    from taskpod.services.pod import make_pod, redirect_task_spec, add_ready_annotation
"""
