import sys
import subprocess
import webbrowser
import time

from memodeck.config import get_host, get_port


def main():
    host, port = get_host(), get_port()
    cmd = [sys.executable, "-m", "uvicorn", "memodeck.main:app", "--port", str(port), "--host", host]

    print(f"Starting MemoDeck API: {' '.join(cmd)}")
    process = subprocess.Popen(cmd)
    try:
        # Give uvicorn a moment before opening the docs page
        time.sleep(2)
        webbrowser.open(f"http://{host}:{port}/docs")
        process.wait()
    except KeyboardInterrupt:
        print("\nStopping...")
        process.terminate()


if __name__ == "__main__":
    main()
