#  This file contains the docrud flask-restful "Resource" objects:
#  - DocrudCollectionAPI: list and create-or-update, eg. /api/users
#  - DocrudInstanceAPI: get-by-id and delete, eg. /api/users/<string:id>
#  - DocrudBulkAPI: bulk insert, eg. /api/users/bulk
#
#  The resource classes are subclassed per exposed resource (cfr. DocrudAPI.expose_resource),
#  the subclasses set the `controller` class attribute.
#
# The method docstrings contain the swagger yaml, the part after "---" is regular documentation
#
# pylint: disable=redefined-builtin,invalid-name,no-member
from flask import request
from flask_restful_swagger_2 import Resource as FRSResource

import docrud
from .controller import ResourceController
from .response import envelope_response


class Resource(FRSResource):
    """
    Superclass for the exposed endpoints
    """

    # controller: the ResourceController that implements the http methods
    # Flask views will need to set this to the controller of the exposed resource
    controller: ResourceController = None


class DocrudCollectionAPI(Resource):
    """
    Collection endpoint: list the documents, create or update a document
    """

    def get(self, **kwargs):
        """
        summary : Retrieve a collection of {model_name} documents
        description : |
            Retrieve the {model_name} documents matching the filter and search arguments.
            Filters on fields that are not allowed are ignored.
        responses :
            200 :
                description : Request fulfilled, documents follow
            500 :
                description : Internal Server Error
        ---
        The filter and search arguments are parsed by DocrudRequest
        """
        envelope = self.controller.get_all(request.filters, request.search, request.search_fields, request.case_sensitive)
        return envelope_response(envelope)

    def post(self, **kwargs):
        """
        summary : Create or update a {model_name}
        description : Create a {model_name} document, the document is updated when the body contains its {id_field}
        responses :
            200 :
                description : Updated
            201 :
                description : Created
            400 :
                description : Validation error
            404 :
                description : Not Found
            409 :
                description : Conflict
        ---
        """
        envelope = self.controller.add_or_update(request.payload)
        return envelope_response(envelope)


class DocrudInstanceAPI(Resource):
    """
    Instance endpoint: fetch or delete a document by its identifier
    """

    def get(self, **kwargs):
        """
        summary : Retrieve a {model_name} document
        responses :
            200 :
                description : Request fulfilled, document follows
            404 :
                description : Not Found
        """
        id = kwargs.get(docrud.DOCRUD.OBJECT_ID)
        return envelope_response(self.controller.get_by_id(id))

    def delete(self, **kwargs):
        """
        summary : Delete a {model_name} document
        responses :
            200 :
                description : Deleted, the deleted document follows (null if it didn't exist)
            400 :
                description : Delete failed
        ---
        Deleting a missing document is not an error
        """
        id = kwargs.get(docrud.DOCRUD.OBJECT_ID)
        return envelope_response(self.controller.remove(id))


class DocrudBulkAPI(Resource):
    """
    Bulk insert endpoint
    """

    def post(self, **kwargs):
        """
        summary : Insert {model_name} documents
        description : Insert a batch of {model_name} documents, no document is inserted if one of them is rejected
        responses :
            201 :
                description : Created
            400 :
                description : Empty batch, validation error or duplicate primary key values
        """
        return envelope_response(self.controller.insert_many(request.payload))
