"""
Kanban ordering service - development server.
"""
import os

from app import create_app

app = create_app()

if __name__ == "__main__":
    print("🚀 Starting kanban ordering service...")
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', '5000')),
        debug=os.getenv('FLASK_ENV') != 'production',
        use_reloader=True
    )
