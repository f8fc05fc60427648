"""Route modules. Each exposes a ``router`` with no logic beyond mapping."""
