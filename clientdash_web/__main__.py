from clientdash_web.app_factory import create_app

if __name__ == "__main__":
    app = create_app()
    # threaded: the export route renders this same app in a headless browser
    app.run(host=app.config["HOST"], port=app.config["PORT"], debug=app.config["DEBUG"], threaded=True)
