import os
import traceback

# cPanel/Passenger looks for 'application' object
os.environ.setdefault('CONFIG_CLASS', 'config.ProductionConfig')

try:
    from app import create_app
    application = create_app()
except Exception:
    # If the app fails to start, write the error to a file we can read via FTP/File Manager
    with open('passenger_crash.log', 'w') as f:
        f.write(traceback.format_exc())

    # Still raise it so Passenger knows it failed
    raise

if __name__ == '__main__':
    application.run()
