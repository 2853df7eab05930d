import os

from visitlog import create_app

app = create_app()


if __name__ == "__main__":
    # Dev mode, container uses gunicorn (gunicorn wsgi:app)
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", "10000")))
