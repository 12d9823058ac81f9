from setuptools import setup, find_packages

setup(
    name="wavedictate",
    version="0.1.0",
    description="Hotkey-driven local voice dictation with optional LLM clean-up",
    author="",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyaudio>=0.2.11",
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "faster-whisper>=1.0.0",
        "rich>=12.5.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0.0",
        "pypubsub>=4.0.3",
        "aiohttp>=3.8.0",
        "pyperclip>=1.8.0",
        "pynput>=1.7.6",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "wavedictate=wavedictate.main:main",
        ],
    },
)
