"""命令行入口：用 uvicorn 启动中继服务。"""

import uvicorn

from llm_relay.config.settings import settings


def main() -> None:
    uvicorn.run("llm_relay.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
