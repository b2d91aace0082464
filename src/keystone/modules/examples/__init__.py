"""Example routes showing each kind of gate."""
