"""
Employee Sentiment Survey Platform
AI module — company analysis orchestration.

Submodules:
    - analysis_runner: detached two-phase company analysis with a
      pollable AnalysisRun status record
"""
