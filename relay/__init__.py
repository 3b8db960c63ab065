# relay/__init__.py
# Shared pieces of the HLS CORS relay: playlist rewriting, CORS headers,
# upstream response handling and the service config loader.
