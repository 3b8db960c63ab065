# api/__init__.py
# Serverless (edge) deployment: one FastAPI app per function file.
