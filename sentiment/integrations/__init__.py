"""sentiment.integrations — External service gateway modules.

All outbound HTTP calls to the AI analysis service must go through the
gateway in this package, never via bare `requests` calls in services or
blueprints. Every call carries a timeout and maps failures to the
AnalysisError hierarchy in ``sentiment.core.exceptions``.

Current gateways:
    - analysis_gateway.AnalysisGateway — /analyze, /analyze-company,
      /regenerate-report, /health
"""
