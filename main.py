from courtdocs.main import app
import os

if __name__ == "__main__":
    # The status app only reads progress files; collection runs from
    # ``python -m courtdocs.scraper.run``. Default to 8080 for local use.
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
