"""app.integrations — External service gateway modules.

All outbound HTTP calls to third-party APIs go through a gateway in this
package, never via bare `requests` calls in services or blueprints.

Current gateways:
  huggingface_gateway.HuggingFaceGateway — HuggingFace Inference API
"""
