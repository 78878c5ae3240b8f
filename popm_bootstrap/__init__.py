"""PoPM Bootstrap - day-0 setup for a Hemi PoP mining node.

Prepares an operator's machine to run the popmd agent shipped in the
heminetwork release bundle.

Key responsibilities:
- Ensure required host tools (screen, gpg) are installed
- Resolve the latest heminetwork release from the release index
- Download and unpack the architecture-matched bundle
- Create or import the mining wallet, backing up any existing wallet file
- Encrypt the private key at rest
- Start popmd in a detached, named screen session
"""

__version__ = "0.1.0"
