"""Vetspire GraphQL access: transport, rate limiting and the record client."""
