"""Domain packages: each one owns its router, service, schemas and, where needed, repository"""
