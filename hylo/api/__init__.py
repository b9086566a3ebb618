"""HTTP surface: Flask app, SSE framing and error handlers."""
