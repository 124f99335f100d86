import base64
import json
import logging
import os
from pathlib import Path

import requests
import www_authenticate
from case_insensitive_dict import CaseInsensitiveDict

from documents import RegistryTagsResponse, validate_document
from errors import EquilibriumError, RegistryError

logger = logging.getLogger(__name__)

DOCKER_HOSTS = [
    'index.docker.io',
    'index.docker.com',
    'registry.docker.io',
    'registry.docker.com',
    'registry-1.docker.io',
    'registry-1.docker.com',
    'docker.io',
    'docker.com',
]

DOCKER_HUB_API = 'registry-1.docker.io'

DEFAULT_TIMEOUT = 30


def docker_config_auth_file():
    config_dir = os.environ.get('DOCKER_CONFIG') or str(Path('~/.docker').expanduser())
    return os.path.join(config_dir, 'config.json')


def parse_repository_url(url):
    """Split ``HOST/NAMESPACE/IMAGE`` into registry host, API host and name."""
    parts = url.split('/')
    if len(parts) < 3 or not all(parts):
        raise RegistryError(
            "Invalid repository URL format: '" + url + "' (expected HOST/NAMESPACE/IMAGE, e.g. 'gcr.io/project-id/image-name')")
    host = parts[0]
    api = DOCKER_HUB_API if host in DOCKER_HOSTS else host
    return {
        'host': host,
        'api': api,
        'name': '/'.join(parts[1:]),
    }


def build_digest_mapping(response):
    mapping = {}
    for digest, manifest in response.manifest.items():
        for tag in manifest.tag:
            mapping[tag] = digest
    return mapping


class RegistryClient:
    """Reads tags and their digests from a Docker Registry v2 API.

    Public repositories are read anonymously. On a 401 the bearer token
    challenge from ``WWW-Authenticate`` is answered once, with basic
    credentials from the docker config file when there are any. A token
    passed in up front is used as is.
    """

    def __init__(self, token=None, timeout=DEFAULT_TIMEOUT, auth_file=None):
        self.token = token
        self.timeout = timeout
        self.auth_file = auth_file or docker_config_auth_file()
        self.token_cache = {}

    def list_tags(self, repository_url):
        """Return ``{tag: digest}`` for every tag the registry reports a digest for."""
        parsed = parse_repository_url(repository_url)
        logger.info('>>> Read tags for %s', repository_url)
        data = self.request_docker_registry(parsed['api'], parsed['name'], 'tags/list')
        try:
            response = validate_document(RegistryTagsResponse, data,
                                         error_prefix='Registry API response validation failed')
        except EquilibriumError as err:
            raise RegistryError(str(err)) from err

        tag_to_digest = build_digest_mapping(response)
        tags = response.tags or []
        result = {t: tag_to_digest[t] for t in tags if t in tag_to_digest}
        if len(result) < len(tags):
            logger.info('>>> %d of %d tags have no digest information and are skipped',
                        len(tags) - len(result), len(tags))
        return result

    def retrieve_new_token(self, api, name, www_authenticate_header):
        cache_key = api + '+' + name

        parsed = www_authenticate.parse(www_authenticate_header)
        if len(parsed) != 1:
            return None
        auth_type = [x for x in parsed.keys()][0]
        challenge = parsed[auth_type]
        if not isinstance(challenge, dict) or 'realm' not in challenge:
            return None
        params = {k: v for k, v in challenge.items() if k != 'realm'}
        auth = self.get_auth_from_config(api)

        logger.debug('>>> Request token from %s', challenge['realm'])
        r = requests.get(challenge['realm'], params=params, auth=auth, timeout=self.timeout)
        r.raise_for_status()
        o = r.json()
        value = o.get('token') or o.get('access_token')
        if not value:
            raise RegistryError('No token in response from ' + challenge['realm'])
        token = auth_type.capitalize() + ' ' + value
        self.token_cache[cache_key] = token
        return token

    def known_token(self, api, name):
        if self.token:
            return 'Bearer ' + self.token

        return self.token_cache.get(api + '+' + name)

    def request_docker_registry(self, api, name, path_and_query):
        url = 'https://' + api + '/v2/' + name + '/' + path_and_query
        try:
            token = self.known_token(api, name)

            i = 0
            while True:
                i += 1
                headers = {}
                if token is not None:
                    headers['Authorization'] = token
                r = requests.get(url, headers=headers, timeout=self.timeout)
                # Unauthorized?
                if r.status_code == 401 and i <= 1 and not self.token:
                    response_headers = CaseInsensitiveDict[str, str](data=r.headers)
                    if 'www-authenticate' not in response_headers:
                        break
                    token = self.retrieve_new_token(api, name, response_headers['www-authenticate'])
                    if token is None:
                        break
                else:
                    break
        except requests.RequestException as err:
            raise RegistryError('Request failed: ' + str(err)) from err

        if not r.ok:
            raise RegistryError('API request failed: ' + str(r.status_code) + ' ' + str(r.reason))

        try:
            return r.json()
        except ValueError as err:
            raise RegistryError('Invalid JSON response: ' + str(err)) from err

    def get_auth_from_config(self, api):
        if not os.path.isfile(self.auth_file):
            return None

        with open(self.auth_file) as reader:
            content = reader.read()

        try:
            o = json.loads(content)
        except ValueError:
            logger.warning('>>> Ignoring unreadable docker config %s', self.auth_file)
            return None
        if 'auths' not in o:
            return None
        auths = o['auths']

        hosts = [api]
        if api in DOCKER_HOSTS:
            hosts += [h for h in DOCKER_HOSTS if h != api] + ['https://index.docker.io/v1/']

        for host in hosts:
            if host in auths and 'auth' in auths[host]:
                logger.info('>>> Use login for %s', host)
                login = base64.b64decode(auths[host]['auth']).decode('utf-8')
                parts = login.split(':', 1)
                return (parts[0], parts[1])

        return None
