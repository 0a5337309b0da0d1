import threading
import time
import webbrowser

import uvicorn

from aldrin.core.settings import settings
from aldrin.main import app

if __name__ == "__main__":
    url = f"http://{settings.HOST}:{settings.PORT}"

    def open_browser():
        time.sleep(1.5)
        webbrowser.open(url)

    threading.Thread(target=open_browser).start()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
