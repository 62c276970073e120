from pathlib import Path
from setuptools import setup, find_packages

__version__ = "1.0.0"


def _requirements(text: str) -> list:
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


try:
    install_requires = _requirements(
        Path(__file__).with_name("requirements.txt").read_text(encoding="utf8")
    )
except FileNotFoundError:
    install_requires = _requirements("""
cryptography>=43.0.0
pyOpenSSL>=24.2.1
requests
validators
idna
rich
pyyaml
art
pydantic>=2.0""")


setup(
    name="trustcheck",
    version=__version__,
    description="Retrieve a server's TLS certificate chain, validate it against a live root program trust store and check the leaf's OCSP revocation status.",
    classifiers=[
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
    ],
    zip_safe=False,
    include_package_data=True,
    install_requires=install_requires,
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": ["trustcheck=trustcheck.cli.__main__:main"],
    },
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    long_description="""
# trustcheck

Retrieve the certificate chain a TLS server presents, validate it against a trust store
assembled from a bundled bootstrap root and the Mozilla root program feed (CCADB), and
check the leaf certificate's revocation status with its OCSP responder.

## Basic Usage

`python3 -m pip install -U trustcheck`

```py
import trustcheck

report = trustcheck.check("example.com", 443)
print('Valid ✓✓✓' if trustcheck.is_valid(report) else 'Not Valid !!!')
```

On the command-line:

```sh
trustcheck check -u example.com https://example.org:8443
trustcheck check --help
```

## Features

- Trust store
  - ✓ Bundled bootstrap root
  - ✓ Mozilla root program PEM feed (CCADB CSV)
  - ✓ Custom PEM bundle (`--ca`)
- TLS
  - ✓ Peer certificate chain retrieval with SNI
  - ✓ Negotiated protocol and cipher
  - ✓ Opt-in insecure retrieval of untrusted chains (never reported as trusted)
- X.509
  - ✓ Validity window per certificate
  - ✓ Path building to a trust anchor (webpki profile)
  - ✓ Hostname match, path length and expired anchor diagnosis
- Revocation
  - ✓ OCSP over HTTP POST with CertID binding, signature and freshness checks
  - ✓ Delegated OCSP responders
- Outputs
  - ✓ Console
  - ✓ JSON
    """,
    long_description_content_type="text/markdown",
)
