from src.classsync.classsync.main import create_app

app = create_app()


if __name__ == "__main__":
    # threaded: each presence event stream holds a worker while it is open
    app.run(threaded=True, debug=app.config.get("DEBUG", False))
