"""
Development entry point. In production run the factory under a WSGI server:

    gunicorn "docprompt:create_app('production')"
"""
from docprompt import create_app
from docprompt.config import environment_name

app = create_app(environment_name())


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=app.config.get("DEBUG", False))
