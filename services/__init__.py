"""
HCC2 Edge Client Services

- Gateway  - Uniform wrapper over the REST surface
- System   - Heartbeat on a mutable period
- Webhook  - Pushed configuration delivery
- Config   - Config cache and operating parameters
- Metrics  - Diagnostics sampling and publishing
"""

__version__ = "1.0.0"
