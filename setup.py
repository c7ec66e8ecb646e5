from setuptools import setup, find_packages

setup(
    name="console-text",
    version="0.1.0",
    description="Rate-limited client that relays application alerts to Telegram via console.text",
    packages=find_packages(include=["console_text", "console_text.*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "fastapi>=0.110",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
