from flask import Flask, jsonify

from config import Config
from logging_config import logger
from calculator_routes import calculators_bp
from calculators import REGISTRY

app = Flask(__name__)
app.secret_key = Config.FLASK_SECRET_KEY
app.config['JSON_SORT_KEYS'] = False

app.register_blueprint(calculators_bp)

logger.info(f"Calculator service ready with {len(REGISTRY)} calculators")


@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'calculators': len(REGISTRY)})


@app.errorhandler(404)
def not_found(e):
    return jsonify({'error': 'Not found'}), 404


@app.errorhandler(500)
def server_error(e):
    logger.error(f"Unhandled server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    app.run(debug=Config.DEBUG, port=Config.PORT)
