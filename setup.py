"""Setup configuration for Correctify package."""
from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read the requirements file
requirements_file = Path(__file__).parent / "correctify" / "requirements.txt"
if requirements_file.exists():
    with open(requirements_file, "r", encoding="utf-8") as f:
        install_requires = [line.strip() for line in f if line.strip() and not line.startswith("#")]
else:
    install_requires = [
        "openai>=1.40.0",
        "httpx>=0.27.0",
        "Flask>=3.0.0",
        "keyboard>=0.13.5",
        "pystray>=0.19.5",
        "Pillow>=10.0.0",
        'pywin32>=306; sys_platform == "win32"',
    ]

setup(
    name="correctify",
    version="1.0.0",
    author="Correctify Project",
    author_email="",
    description="AI-powered text correction from a global shortcut, across LLM providers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Text Processing :: Linguistic",
        "Topic :: Office/Business",
        "License :: OSI Approved :: MIT License",
        "Operating System :: Microsoft :: Windows",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Natural Language :: English",
    ],
    keywords="text-correction grammar ai openai anthropic mistral openrouter hotkey",
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "respx>=0.21.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "correctify=correctify.main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "correctify": [
            "requirements.txt",
        ],
    },
    zip_safe=False,
    license="MIT",
)
