"""
Interaction with the cloud the agents run in. At the moment only the
EC2 instance metadata service is supported.
"""
