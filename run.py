# run.py
from dotenv import load_dotenv
load_dotenv()   # Must be FIRST, before config classes read os.environ

import os

from qrcheckin import create_app, db
from qrcheckin.models import User, Event, Attendee, ActivityLog

app = create_app(os.environ.get('FLASK_CONFIG', 'development'))


@app.shell_context_processor
def make_shell_context():
    """Make database models available in shell"""
    return {
        'db': db,
        'User': User,
        'Event': Event,
        'Attendee': Attendee,
        'ActivityLog': ActivityLog
    }


if __name__ == '__main__':
    app.run(debug=False, host='0.0.0.0', port=5000)
