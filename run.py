from roktodan import create_app
import os

# Development defaults; real deployments set these in the environment or .env
os.environ.setdefault('SECRET_KEY', 'dev_secret_key_for_testing')
os.environ.setdefault('DATABASE_URI', 'sqlite:///roktodan.db')
os.environ.setdefault('MOCK_SERVICES', 'true')

# Create the Flask application
app = create_app()

if __name__ == '__main__':
    app.run(debug=True)
