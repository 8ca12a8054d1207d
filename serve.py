"""
Flask server entry point.

  python serve.py                      # development server
  gunicorn -w 2 -b 0.0.0.0:5000 serve:app
"""

from backend import create_app
from config import settings

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=settings.serve_port, threaded=True)
