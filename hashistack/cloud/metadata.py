"""
functions and classes to query the EC2 instance metadata service
"""
import json

from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from hashistack.util.logger import Logger
from hashistack.util.net import is_ip

LOGGER = Logger(__name__)

TOKEN_PATH = "/latest/api/token"
LOCAL_IPV4_PATH = "/latest/meta-data/local-ipv4"
PUBLIC_IPV4_PATH = "/latest/meta-data/public-ipv4"
INSTANCE_ID_PATH = "/latest/meta-data/instance-id"
AVAILABILITY_ZONE_PATH = "/latest/meta-data/placement/availability-zone"
IDENTITY_DOCUMENT_PATH = "/latest/dynamic/instance-identity/document"


class MetadataError(RuntimeError):
    """Raised when the metadata service can't be queried or answers garbage"""


class InstanceMetadata:  # pylint: disable=too-few-public-methods
    """
    The network identity of the running instance.

    Args:
        ip_address (str): the private IPv4 address
        instance_id (str): e.g. ``i-0123456789abcdef0``
        region (str): e.g. ``us-east-1``
        availability_zone (str): e.g. ``us-east-1a``
        public_ip (str): the public IPv4 address or None
    """
    def __init__(self, ip_address, instance_id, region, availability_zone,
                 public_ip=None):
        self.ip_address = ip_address
        self.instance_id = instance_id
        self.region = region
        self.availability_zone = availability_zone
        self.public_ip = public_ip

    @property
    def reachability(self):
        """``public`` if the instance has a public IP, else ``private``"""
        return "public" if self.public_ip else "private"

    def __repr__(self):
        return "<InstanceMetadata %s %s %s/%s %s>" % (
            self.instance_id, self.ip_address, self.region,
            self.availability_zone, self.reachability)


class MetadataClient:
    """
    A client for the instance metadata service.

    With ``imdsv2`` a session token is requested once and sent with
    every subsequent request.

    Args:
        url (str): the base URL of the service
        timeout (int): timeout in seconds for each request
        imdsv2 (bool): use the token based protocol
        token_ttl (int): lifetime of the session token in seconds
    """
    def __init__(self, url="http://169.254.169.254", timeout=5, imdsv2=True,
                 token_ttl=21600):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.imdsv2 = imdsv2
        self.token_ttl = token_ttl
        self._token = None

    @classmethod
    def from_settings(cls, settings):
        """Create a client from the ``metadata`` section of the settings"""
        conf = settings['metadata']
        return cls(conf['url'], conf['timeout'], conf['imdsv2'],
                   conf['token-ttl'])

    def _open(self, request):
        with urlopen(request, timeout=self.timeout) as resp:
            return resp.read().decode().strip()

    def _headers(self):
        if not self.imdsv2:
            return {}

        if self._token is None:
            request = Request(
                self.url + TOKEN_PATH, method="PUT",
                headers={"X-aws-ec2-metadata-token-ttl-seconds":
                         str(self.token_ttl)})
            try:
                self._token = self._open(request)
            except (HTTPError, URLError, OSError) as exc:
                raise MetadataError(
                    f"unable to get a metadata session token: {exc}") from exc

        return {"X-aws-ec2-metadata-token": self._token}

    def get(self, path, allow_missing=False):
        """
        Query a single metadata path.

        Args:
            path (str): e.g. ``/latest/meta-data/instance-id``
            allow_missing (bool): return None instead of raising when the
                service answers 404.

        Raises:
            MetadataError
        """
        request = Request(self.url + path, headers=self._headers())
        LOGGER.debug("Querying metadata %s", path)
        try:
            value = self._open(request)
        except HTTPError as exc:
            if exc.code == 404 and allow_missing:
                return None
            raise MetadataError(f"{path}: {exc}") from exc
        except (URLError, OSError) as exc:
            raise MetadataError(f"{path}: {exc}") from exc

        if not value and not allow_missing:
            raise MetadataError(f"{path}: empty answer")
        return value or None

    def _get_ip(self, path, allow_missing=False):
        value = self.get(path, allow_missing)
        if value is not None and not is_ip(value):
            raise MetadataError(f"{path}: '{value}' is not an IP address")
        return value

    def local_ipv4(self):
        return self._get_ip(LOCAL_IPV4_PATH)

    def public_ipv4(self):
        """The public IP or None if the instance has none"""
        return self._get_ip(PUBLIC_IPV4_PATH, allow_missing=True)

    def instance_id(self):
        return self.get(INSTANCE_ID_PATH)

    def availability_zone(self):
        return self.get(AVAILABILITY_ZONE_PATH)

    def region(self):
        """Read the region from the signed instance identity document"""
        document = self.get(IDENTITY_DOCUMENT_PATH)
        try:
            return json.loads(document)['region']
        except (ValueError, KeyError, TypeError) as exc:
            raise MetadataError(
                f"no region in instance identity document: {exc}") from exc

    def instance(self):
        """Collect all facts the agent configurations need.

        Returns:
            :class:`InstanceMetadata`
        """
        instance = InstanceMetadata(
            ip_address=self.local_ipv4(),
            instance_id=self.instance_id(),
            region=self.region(),
            availability_zone=self.availability_zone(),
            public_ip=self.public_ipv4())
        LOGGER.debug("Instance metadata: %r", instance)
        return instance
