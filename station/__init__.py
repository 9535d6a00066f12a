"""
Demo station web application: project registry, range streaming, live reload
and the local-network password gate.
"""
