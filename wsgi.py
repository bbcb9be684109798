"""
WSGI entry point — used by gunicorn.
"""
from growth import create_app

app = create_app()

if __name__ == '__main__':
    import os
    from growth.database import init_db
    init_db()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)))
