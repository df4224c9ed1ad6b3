def init_celery(app, celery_app):
    """
    Binds the global celery_app to the Flask app config.
    """
    celery_app.conf.update(app.config)

    # Tasks run inside the app context so they can reach db.session and mail.
    class ContextTask(celery_app.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app.Task = ContextTask
    celery_app.main = app.import_name
    return celery_app
