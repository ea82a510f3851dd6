from __future__ import annotations

import logging

from flask import Flask

from clientdash_web.adapters.download_sinks import DirectoryDownloadSink
from clientdash_web.adapters.sqlserver_clients import SqlServerClientRepository
from clientdash_web.config.ini_config import IniConfig
from clientdash_web.services.client_service import ClientService
from clientdash_web.services.export_service import ExportService
from clientdash_web.services.user_settings import UserSettingsStore
from clientdash_web.web.routes import create_blueprint


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(ini: IniConfig | None = None, client_repo=None) -> Flask:
    ini = ini or IniConfig.from_env_or_default()
    settings = ini.load_settings()
    configure_logging(settings.log_level)

    if client_repo is None:
        client_repo = SqlServerClientRepository(
            ini_path=str(ini.ini_path),
            clients_table="dbo.Clients",
            analyses_table="dbo.ExternalAnalyses",
        )

    client_service = ClientService(repo=client_repo)

    export_service = ExportService(
        public_base_url=settings.public_base_url,
        region_id=settings.export_region_id,
        options=settings.export,
        browser=settings.browser,
        downloads=DirectoryDownloadSink(settings.downloads_dir) if settings.downloads_dir else None,
    )

    settings_store = UserSettingsStore(path=settings.user_settings_path)

    app = Flask(__name__)
    app.register_blueprint(create_blueprint(client_service, export_service, settings_store))

    app.config["HOST"] = settings.flask_host
    app.config["PORT"] = settings.flask_port
    app.config["DEBUG"] = settings.flask_debug

    return app
