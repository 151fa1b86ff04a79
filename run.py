"""
Backlog Development Server
Validates configuration, then serves the API with Flask's built-in server.
"""
import os

from app import create_app
from utils.startup_validation import run_startup_validation

app = create_app()

if __name__ == "__main__":
    run_startup_validation(app)
    print("🚀 Starting backlog API...")
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', '5000')),
        debug=os.getenv('FLASK_ENV') == 'development',
        use_reloader=True
    )
