import os

from genremix.app import create_app

app = create_app()


if __name__ == '__main__':
    print('Starting GenreMix...')

    # Loopback by default; containers set HOST=0.0.0.0
    app.run(host=os.environ.get('HOST', '127.0.0.1'),
            port=int(os.environ.get('PORT', '8080')),
            debug=os.environ.get('FLASK_DEBUG') == '1')
