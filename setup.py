from pathlib import Path

from setuptools import find_packages, setup

version = (Path(__file__).parent / "unittest_parallel/VERSION").read_text("ascii").strip()


install_requires = [
    "Twisted>=21.7.0",
    "queuelib>=1.4.2",
    "zope.interface>=5.1.0",
    "lxml>=4.6.0",
]
extras_require = {
    ':platform_python_implementation == "CPython"': ["PyDispatcher>=2.0.5"],
    ':platform_python_implementation == "PyPy"': ["PyPyDispatcher>=2.1.0"],
    "test": ["pytest", "testfixtures<11.0.3"],
}


setup(
    name="unittest-parallel",
    version=version,
    description="Run a unittest suite across a pool of worker processes",
    long_description=open("README.rst", encoding="utf-8").read(),
    license="BSD",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"unittest_parallel": ["VERSION"]},
    include_package_data=True,
    zip_safe=False,
    entry_points={
        "console_scripts": ["unittest-parallel = unittest_parallel.cmdline:execute"]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: POSIX",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: Implementation :: CPython",
        "Programming Language :: Python :: Implementation :: PyPy",
        "Topic :: Software Development :: Testing",
    ],
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
)
