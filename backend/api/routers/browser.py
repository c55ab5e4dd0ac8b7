import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.errors import MalformedOid, MibServiceError, NodeNotFound, TreeEmpty
from services.mib_service import MibTreeService, get_mib_service

router = APIRouter(tags=["MIB Browser"])
logger = logging.getLogger(__name__)


@router.get("/tree")
@router.get("/api/mib_tree", include_in_schema=False)
def get_tree(mib_service: MibTreeService = Depends(get_mib_service)):
    """
    Full MIB forest, roots and children in numeric OID order.

    Returns 500 when loading failed or produced no roots.
    """
    try:
        return mib_service.get_tree()

    except TreeEmpty as e:
        raise HTTPException(status_code=500, detail=str(e))
    except MibServiceError as e:
        logger.error(f"Failed to serve MIB tree: {e}")
        raise HTTPException(status_code=500, detail=f"MIB loading failed: {e}")
    except Exception as e:
        logger.error(f"Failed to serve MIB tree: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing MIB tree.")


@router.get("/node")
@router.get("/api/mib_node_details", include_in_schema=False)
def get_node_details(
    oid: Optional[str] = Query(None, description="Numeric OID, e.g. 1.3.6.1.2.1.1.1"),
    mib_service: MibTreeService = Depends(get_mib_service),
):
    """
    Detail view of a single node (type, enums, ranges...). No children.
    """
    if not oid:
        raise HTTPException(status_code=400, detail="OID query parameter is required.")

    try:
        return mib_service.get_node(oid)

    except MalformedOid as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NodeNotFound as e:
        logger.info(f"Error getting node for OID {oid}: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except MibServiceError as e:
        logger.error(f"Failed to get node details for {oid}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get node details for {oid}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error processing node details.")
