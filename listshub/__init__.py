"""Family lists with plan-gated sharing and invites."""
