"""Request authentication against the external identity provider."""
