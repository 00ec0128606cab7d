from setuptools import setup, find_packages

setup(
    name="sitesnap",
    version="1.2.0",
    packages=find_packages(include=["sitesnap", "sitesnap.*"]),
    install_requires=[
        "requests>=2.31.0",
        "beautifulsoup4>=4.12.0",
        "python-dotenv>=1.0.0",
        "click>=8.1.0",
        "rich>=13.0.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "hypothesis>=6.90.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sitesnap=sitesnap.cli.main:main",
        ]
    },
    author="sitesnap contributors",
    description="Versioned page structure snapshots for websites: sitemap discovery, URL level classification and merge history.",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    license="MIT",
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
