from app.main import app
import os

if __name__ == "__main__":
    # The hosting environment may provide PORT; default to 8080 for local
    # development. Threaded so status polls are served while jobs run.
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, threaded=True)
