from setuptools import setup, find_packages

setup(
    name="neurobridge",
    version="0.1.0",
    description="Local Unix-socket bridge exposing host GPU information to a chroot or container",
    author="phisanti",
    author_email="tisalon@outlook.com",
    license="MIT",
    packages=find_packages(include=["neurobridge", "neurobridge.*"]),
    install_requires=[
        "typer>=0.16",
        "click>=8.2",
        "rich>=13.0",
        "python-dotenv>=1.0.0",
        "nvidia-ml-py>=12.535",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "neuro=neurobridge.main:neuro",
            "neuro-bridge-server=neurobridge.daemon.server:main",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
