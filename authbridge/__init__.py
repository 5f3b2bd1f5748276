"""Silent OAuth2 bridge between a Kratos session and Hydra-issued tokens."""
