"""Functions backing the OWASP API Security Top 10 rules."""
