"""FraudGate HTTP service, storage adapters and operator CLI."""
