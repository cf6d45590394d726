from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
try:
    with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "msync - Mirror a music library, transcoding files above a bitrate ceiling"

setup(
    name="msync",
    version="1.0.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="Mirror a music library, transcoding files above a bitrate ceiling",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Multimedia :: Sound/Audio :: Conversion",
    ],
    python_requires=">=3.9",
    install_requires=[
        "tqdm>=4.0.0",
        "psutil>=5.0.0",
        "Send2Trash>=1.8.0",
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "flake8",
        ],
    },
    entry_points={
        "console_scripts": [
            "msync=msync.cli:run",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
