"""Local development entry point.

Usage:
    python run.py

Serves the payment callbacks on port 5001. Expose it with a tunnel
(e.g. ngrok) to receive real Wave deliveries.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from cargopay import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001)
